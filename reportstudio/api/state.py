from __future__ import annotations

from dataclasses import dataclass

from reportstudio.repository import DocumentRepo
from reportstudio.services import Services


@dataclass
class AppState:
    repo: DocumentRepo
    services: Services
