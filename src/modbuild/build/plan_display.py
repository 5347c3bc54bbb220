"""Rich rendering of a module build plan.

Prints the compile order with the BMI files each unit produces, followed by
the header units (standard library first, in build order):

    Module build plan: app
     #  Unit                         Provides   BMI
     1  .objs/app/src/hello.mpp.o    hello      .gens/app/rules/modules/cache/hello.gcm
     2  .objs/app/src/main.cpp.o
"""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .headerunits import HeaderUnit
from .modules_support import ModuleBuildPlan


def _headerunit_table(title: str, headerunits: list[HeaderUnit]) -> Table:
    table = Table(title=title, title_justify="left", show_edge=False)
    table.add_column("Header", style="cyan")
    table.add_column("Type")
    table.add_column("Path", style="dim")
    for headerunit in headerunits:
        table.add_row(headerunit.name, str(headerunit.type), str(headerunit.path or "-"))
    return table


def build_plan_table(plan: ModuleBuildPlan) -> Table:
    """Build the compile order table of a plan."""
    table = Table(title=f"Module build plan: {plan.scope_name}", title_justify="left", show_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Unit")
    table.add_column("Provides", style="green")
    table.add_column("BMI", style="dim")

    for index, unit in enumerate(plan.compile_order, start=1):
        provides = plan.bmi_files.get(unit, {})
        if not provides:
            table.add_row(str(index), unit, "", "")
            continue
        for row, (name, bmi) in enumerate(provides.items()):
            table.add_row(str(index) if row == 0 else "", unit if row == 0 else "", name, str(bmi))
    return table


def render_plan(plan: ModuleBuildPlan, console: Optional[Console] = None) -> None:
    """Print a module build plan.

    Args:
        plan: Plan to render
        console: Rich Console to print to. If None, creates a new one.
    """
    console = console if console is not None else Console()
    if plan.is_empty:
        console.print(Text(f"{plan.scope_name}: no module units", style="dim"))
        return

    console.print(build_plan_table(plan))
    if plan.stl_headerunits:
        console.print(_headerunit_table("Standard library header units", plan.stl_headerunits))
    if plan.user_headerunits:
        console.print(_headerunit_table("User header units", plan.user_headerunits))
