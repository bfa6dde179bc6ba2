from .types import CheckResult
from .runner import CheckRunner, MAX_RETRIES
from .http_check import check_http
from .tcp_check import check_tcp
from .dns_check import check_dns

__all__ = ["CheckResult", "CheckRunner", "MAX_RETRIES", "check_http", "check_tcp", "check_dns"]
