"""
Shared pytest fixtures for OpenDW tests.
"""

import pytest

from opendw.core import (
    ConstrDuty,
    ConstrSense,
    Formulation,
    Reformulation,
    VarDuty,
)


def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


@pytest.fixture
def bound_form():
    """Plain formulation: x + y <= 10, x in [0, 4], y in [0, inf)."""
    form = Formulation(uid=0, name="bound")
    x = form.add_var("x", VarDuty.ORIGINAL_VAR, lb=0.0, ub=4.0)
    y = form.add_var("y", VarDuty.ORIGINAL_VAR)
    form.add_constr(
        "c", ConstrDuty.ORIGINAL_CONSTR, ConstrSense.LESS, 10.0,
        members={x: 1.0, y: 1.0},
    )
    return form


@pytest.fixture
def two_level_reform():
    """
    Reformulation with one subproblem of multiplicity [1, 2].

    - sp: pricing variable x in [0, 3], constraint x <= 2
    - master: clone of x (bounds [0, 6]), pure variable z in [0, 10],
      linking constraint x + z <= 100
    - one column with x = 3 and one with x = 1
    """
    reform = Reformulation(name="two_level")
    sp = reform.add_dw_pricing_sp(lb_mult=1, ub_mult=2)
    x, x_clone = reform.add_pricing_var(sp, "x", lb=0.0, ub=3.0, cost=1.0)
    sp.add_constr(
        "sp_cap", ConstrDuty.DW_SP_PURE_CONSTR, ConstrSense.LESS, 2.0,
        members={x: 1.0},
    )

    master = reform.master
    z = master.add_var("z", VarDuty.MASTER_PURE_VAR, lb=0.0, ub=10.0)
    master.add_constr(
        "link", ConstrDuty.MASTER_MIXED_CONSTR, ConstrSense.LESS, 100.0,
        members={x_clone: 1.0, z: 1.0},
    )
    reform.add_column(sp, {x: 3.0}, name="col_x3")
    reform.add_column(sp, {x: 1.0}, name="col_x1")
    return reform
