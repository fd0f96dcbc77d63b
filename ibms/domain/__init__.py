# Domain packages; importing both model modules registers every mapped class
# so string relationship targets such as "BedAssignment" resolve.
from ibms.domain.beds import models as bed_models  # noqa: F401
from ibms.domain.admissions import models as admission_models  # noqa: F401
