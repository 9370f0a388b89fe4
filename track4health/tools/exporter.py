import json
from datetime import date
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel


def export_filename(today: Optional[date] = None) -> str:
    return f"export_{(today or date.today()).isoformat()}.json"


def export_sessions(sessions: Sequence[BaseModel], today: Optional[date] = None) -> Tuple[str, str]:
    """
    Serializes a filtered collection the way the device export does:
    indented JSON with the stored (camelCase) field names.

    Returns `(filename, content)`.
    """
    payload = [session.model_dump(mode="json", by_alias=True) for session in sessions]
    return export_filename(today), json.dumps(payload, indent=2)
