import uuid

from pairing.core.domain_types import PartyKind, RequestId

_REQUEST_PREFIXES = {
    PartyKind.STUDENT: "preq",
    PartyKind.SUPERVISOR: "sreq",
}


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def new_request_id(kind: PartyKind) -> RequestId:
    return RequestId(gen_id(_REQUEST_PREFIXES[kind]))
