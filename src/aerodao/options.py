from dataclasses import dataclass

from libb import ConfigOptions, scriptname

__all__ = ['DAOOptions']


@dataclass
class DAOOptions(ConfigOptions):
    """Options

    timeout is in milliseconds, 0 keeps the client default.

    Query options:
    - strict_literals: reject bound values containing quotes, semicolons,
      backslashes or newlines (default: False)
    - statement_cache_size: compiled statements kept per DAO, 0 disables
      the cache (default: 128)
    """
    hostname: str = 'localhost'
    port: int = 3000
    username: str = None
    password: str = None
    timeout: int = 0
    appname: str = None
    strict_literals: bool = False
    statement_cache_size: int = 128

    def __post_init__(self):
        if not self.hostname:
            raise ValueError('hostname is required')
        if not 0 < int(self.port) < 65536:
            raise ValueError(f'port must be between 1 and 65535, not {self.port}')
        if self.timeout < 0:
            raise ValueError(f'timeout must not be negative, not {self.timeout}')
        if self.statement_cache_size < 0:
            raise ValueError(f'statement_cache_size must not be negative, not {self.statement_cache_size}')
        if self.password and not self.username:
            raise ValueError('password given without username')
        self.appname = self.appname or scriptname() or 'python_console'
