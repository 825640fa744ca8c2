"""Recipe: cooperative, step-driven scheduling of actions.

Core Objects: Action, Procedure, Scheduler
"""

import datetime

from recipe.actions import Action, ActionPhase, create_action
from recipe.procedure import Procedure, ProcedureState, suspend
from recipe.scheduler import Failure, Scheduler, create_scheduler
from recipe.timeflow import RunControl

__all__ = [
    "Action",
    "ActionPhase",
    "Failure",
    "Procedure",
    "ProcedureState",
    "RunControl",
    "Scheduler",
    "create_action",
    "create_scheduler",
    "suspend",
]

__title__ = "recipe"
__version__ = "0.1.0"
__license__ = "MIT"
_this_year = datetime.datetime.now(tz=datetime.UTC).date().year
__copyright__ = f"Copyright {_this_year} Recipe Team"
