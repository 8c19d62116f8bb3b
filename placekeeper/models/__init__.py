"""ORM models."""

from placekeeper.models.job_run import JobRun  # noqa: F401
from placekeeper.models.place import Place, PlaceSource  # noqa: F401
