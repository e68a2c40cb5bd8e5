from typing import List, Optional

from pydantic import BaseModel


class ReadNotificationsRequest(BaseModel):
    """Empty / missing ids marks everything read"""
    ids: Optional[List[str]] = None
