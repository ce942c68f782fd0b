"""
Reformulation module - a Dantzig-Wolfe decomposition of a problem.

A Reformulation ties a master formulation to its pricing subproblems:

    master:   sum_j c_j * lambda_j + (pure master part)
              linking constraints over representatives of subproblem variables
              L_k <= sum_{j in k} lambda_j <= U_k      (convexity, per subproblem k)

    sp k:     constraints over the pricing variables of block k

Every pricing variable x of subproblem k has an implicit clone in the master
(duty MASTER_REP_PRICING_VAR) with the same id. The clone stands for the
aggregated value of x over all copies of block k used by the master, so its
bounds are the subproblem bounds scaled by the multiplicity interval
[L_k, U_k].

Generated columns are added with `add_column`, which records the column's
subproblem solution in `master.primal_sp_sols` and projects it on the master
constraints through the representatives.
"""

from typing import Dict, Iterator, Optional, Tuple, Union

from opendw.core.duty import ConstrDuty, VarDuty
from opendw.core.formulation import Formulation, FormulationDuty, IdGenerator
from opendw.core.varconstr import ConstrSense, Variable, VarKind


def scaled_bound(bound: float, multiplicity: float) -> float:
    """
    Multiply a (possibly infinite) bound by a multiplicity.

    A zero multiplicity yields 0 even for infinite bounds.
    """
    if multiplicity == 0 or bound == 0:
        return 0.0
    return bound * multiplicity


class Reformulation:
    """
    Master formulation plus its Dantzig-Wolfe pricing subproblems.

    Attributes:
        name: Human-readable name
        master: The master formulation
        dw_pricing_sps: Subproblems keyed by formulation uid
        dw_pricing_sp_lb: Uid of a subproblem -> id of its lower convexity constraint
        dw_pricing_sp_ub: Uid of a subproblem -> id of its upper convexity constraint

    Example:
        >>> reform = Reformulation()
        >>> sp = reform.add_dw_pricing_sp(lb_mult=1, ub_mult=2)
        >>> x, x_clone = reform.add_pricing_var(sp, "x", lb=0.0, ub=3.0)
        >>> reform.master.get_cur_ub(x_clone)
        6.0
    """

    def __init__(self, name: str = "reformulation"):
        self.name = name
        self._ids = IdGenerator()
        self._next_form_uid = 1

        self.master = Formulation(
            uid=0,
            duty=FormulationDuty.DW_MASTER,
            name="master",
            id_generator=self._ids,
        )
        self.dw_pricing_sps: Dict[int, Formulation] = {}
        self.dw_pricing_sp_lb: Dict[int, int] = {}
        self.dw_pricing_sp_ub: Dict[int, int] = {}

    # =========================================================================
    # Building
    # =========================================================================

    def add_dw_pricing_sp(
        self,
        lb_mult: float = 0.0,
        ub_mult: float = 1.0,
        name: str = "",
    ) -> Formulation:
        """
        Create a pricing subproblem and its convexity constraints.

        Args:
            lb_mult: Minimum number of times the subproblem's solutions are used
            ub_mult: Maximum number of times the subproblem's solutions are used
            name: Human-readable name

        Returns:
            The subproblem formulation

        Raises:
            ValueError: If the multiplicity interval is empty or negative
        """
        if lb_mult < 0 or ub_mult < lb_mult:
            raise ValueError(
                f"Invalid multiplicity interval [{lb_mult}, {ub_mult}]"
            )

        uid = self._next_form_uid
        self._next_form_uid += 1
        sp = Formulation(
            uid=uid,
            duty=FormulationDuty.DW_SP,
            name=name or f"sp_{uid}",
            parent_formulation=self.master,
            id_generator=self._ids,
        )
        self.dw_pricing_sps[uid] = sp

        lb_constr = self.master.add_constr(
            f"sp_lb_{uid}", ConstrDuty.MASTER_CONVEXITY_CONSTR,
            ConstrSense.GREATER, float(lb_mult),
        )
        ub_constr = self.master.add_constr(
            f"sp_ub_{uid}", ConstrDuty.MASTER_CONVEXITY_CONSTR,
            ConstrSense.LESS, float(ub_mult),
        )
        self.dw_pricing_sp_lb[uid] = lb_constr.id
        self.dw_pricing_sp_ub[uid] = ub_constr.id
        return sp

    def add_pricing_var(
        self,
        sp: Formulation,
        name: str,
        lb: float = 0.0,
        ub: float = float('inf'),
        cost: float = 0.0,
        kind: VarKind = VarKind.CONTINUOUS,
    ) -> Tuple[Variable, Variable]:
        """
        Create a pricing variable and its master representative.

        Args:
            sp: The subproblem that owns the variable
            name: Human-readable name
            lb: Lower bound of one copy of the variable
            ub: Upper bound of one copy of the variable
            cost: Objective coefficient
            kind: Continuous, binary or integer

        Returns:
            (subproblem variable, master clone)
        """
        self._check_sp(sp)
        sp_var = sp.add_var(
            name, VarDuty.DW_SP_PRICING_VAR, lb=lb, ub=ub, cost=cost, kind=kind,
        )
        mult_lb, mult_ub = self.get_sp_multiplicity(sp.uid)
        clone_kind = VarKind.INTEGER if kind == VarKind.BINARY else kind
        clone = self.master.add_var(
            name,
            VarDuty.MASTER_REP_PRICING_VAR,
            lb=scaled_bound(sp_var.perene.lb, mult_lb),
            ub=scaled_bound(sp_var.perene.ub, mult_ub),
            cost=cost,
            kind=clone_kind,
            is_explicit=False,
            id=sp_var.id,
            origin_form_uid=sp.uid,
        )
        return sp_var, clone

    def add_column(
        self,
        sp: Formulation,
        solution: Dict[Union[Variable, int], float],
        cost: Optional[float] = None,
        name: str = "",
    ) -> Variable:
        """
        Add a column generated by a subproblem to the master.

        The column's coefficient in a master constraint is the sum of the
        coefficients of the representatives weighted by the solution values.
        It also gets coefficient 1 in both convexity constraints of `sp`.

        Args:
            sp: The subproblem the solution comes from
            solution: Value of each subproblem variable in one copy of the block
            cost: Column cost; defaults to the cost of the solution
            name: Human-readable name

        Returns:
            The column variable (duty MASTER_COL)
        """
        self._check_sp(sp)
        values = {
            (v.id if isinstance(v, Variable) else v): val
            for v, val in solution.items()
            if val != 0.0
        }
        if cost is None:
            cost = sum(sp.get_cur_cost(var_id) * val for var_id, val in values.items())

        master = self.master
        col = master.add_var(
            name or f"col_{sp.uid}_{len(master.vars)}",
            VarDuty.MASTER_COL,
            lb=0.0,
            ub=float('inf'),
            cost=cost,
            origin_form_uid=sp.uid,
        )

        coefs: Dict[int, float] = {}
        for var_id, val in values.items():
            master.primal_sp_sols[var_id, col.id] = val
            for constr_id, coef in master.coef_matrix.column(var_id):
                coefs[constr_id] = coefs.get(constr_id, 0.0) + coef * val
        for constr_id, coef in coefs.items():
            master.set_coef(constr_id, col, coef)
        master.set_coef(self.dw_pricing_sp_lb[sp.uid], col, 1.0)
        master.set_coef(self.dw_pricing_sp_ub[sp.uid], col, 1.0)
        return col

    # =========================================================================
    # Access
    # =========================================================================

    def get_dw_pricing_sps(self) -> Dict[int, Formulation]:
        return self.dw_pricing_sps

    def get_sp_multiplicity(self, sp_uid: int) -> Tuple[float, float]:
        """Current multiplicity interval [L_k, U_k] of a subproblem."""
        return (
            self.master.get_cur_rhs(self.dw_pricing_sp_lb[sp_uid]),
            self.master.get_cur_rhs(self.dw_pricing_sp_ub[sp_uid]),
        )

    def find_owner_formulation(self, var: Variable) -> Formulation:
        """
        Find the subproblem a master representative or column comes from.

        Raises:
            KeyError: If the variable does not come from a subproblem
        """
        if var.origin_form_uid is None:
            raise KeyError(f"Variable {var.name} does not come from a subproblem")
        return self.dw_pricing_sps[var.origin_form_uid]

    def formulations(self) -> Iterator[Formulation]:
        """Master first, then every subproblem."""
        yield self.master
        yield from self.dw_pricing_sps.values()

    def columns(self, sp_uid: Optional[int] = None) -> Iterator[Variable]:
        """Generated columns of the master, optionally of one subproblem only."""
        for var in list(self.master.vars.values()):
            if var.duty is not VarDuty.MASTER_COL:
                continue
            if sp_uid is None or var.origin_form_uid == sp_uid:
                yield var

    def _check_sp(self, sp: Formulation) -> None:
        if self.dw_pricing_sps.get(sp.uid) is not sp:
            raise ValueError(f"{sp.name} is not a subproblem of {self.name}")

    def __repr__(self) -> str:
        return (
            f"Reformulation({self.name!r}, "
            f"subproblems={len(self.dw_pricing_sps)})"
        )
