# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from app.models.user import User  # noqa: F401  (doit précéder progress)
from app.models.level import Level  # noqa: F401
from app.models.category import Category  # noqa: F401
from app.models.challenge import Challenge, Stage  # noqa: F401
from app.models.progress import ChallengeProgress, StageProgress  # noqa: F401
