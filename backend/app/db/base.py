# Import all the models, so that Base has them before being
# imported by Alembic
from app.db.base_class import Base  # noqa

# Accounts and sessions
from app.models.user import User  # noqa
from app.models.manager import ManagerRole  # noqa
from app.models.refresh_token import RefreshToken  # noqa

# Employee records
from app.models.employee import Employee  # noqa
from app.models.department_history import DepartmentHistory  # noqa
from app.models.performance import PerformanceReview  # noqa
from app.models.goal import Goal  # noqa
