# Minimal 9P2000 client
from .client import P9Client, P9Error, P9ConnectionError, Fid
from .wire import OREAD, OWRITE, ORDWR, OTRUNC

__all__ = [
    'P9Client',
    'P9Error',
    'P9ConnectionError',
    'Fid',
    'OREAD', 'OWRITE', 'ORDWR', 'OTRUNC',
]
