from .azure import parse_azure_csv
from .base import ParseOutcome
from .csv_header import resolve_header
from .gcp import parse_gcp_imports
from .generic import parse_generic_csv
from .remote import parse_remote_commitments
from .sources import open_input

__all__ = [
    "ParseOutcome",
    "resolve_header",
    "parse_gcp_imports",
    "parse_azure_csv",
    "parse_generic_csv",
    "parse_remote_commitments",
    "open_input",
]
