"""Operation result schemas"""
from pydantic import BaseModel
from typing import Optional, Dict, Any


class OperationResponse(BaseModel):
    """Successful write; ``signature`` is None when nothing had to be sent"""
    operation: str
    signature: Optional[str] = None
    context: Dict[str, Any] = {}
