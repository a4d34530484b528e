from .base import ApiOk


class SystemStatusOut(ApiOk):
    ping: int
    connection: str
    wifi: str
