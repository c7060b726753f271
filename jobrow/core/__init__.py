from .common import parse_fetch_params, parse_insert_params
from .statements import JobStatements


__all__ = ["JobStatements", "parse_fetch_params", "parse_insert_params"]
