from typing import Final


class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    JOBS = V1 + "/jobs"
    JOB = JOBS + "/{job_id}"
    JOB_PAUSE = JOB + "/pause"
    JOB_RESUME = JOB + "/resume"
    JOB_CANCEL = JOB + "/cancel"
    JOB_EVENTS = JOBS + "/events"
    JOBS_RECOVER = JOBS + "/recover"
    LOOKUP = V1 + "/lookup"
    REGISTRATIONS = V1 + "/registrations"


class ExternalURIs:
    LOOKUP_OFFERS = "/facta/consulta-ofertas"
    REGISTER_CLT = "/cad-clt"


CANCELLED_BY_USER: Final[str] = "cancelled by user"
REGISTERED_STATUS: Final[str] = "ativo"
NO_OFFER_MESSAGE: Final[str] = "Nenhuma oferta encontrada."
