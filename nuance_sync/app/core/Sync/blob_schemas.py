# blob_schemas.py
# Description: Pydantic models for the remote blob wire format (the Gist envelope and the history document inside it).
#
# Imports
from typing import Any, Dict, List, Optional, Union
#
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
# Local Imports
#
########################################################################################################################
#
# Functions:

class RemoteBlobDocument(BaseModel):
    """
    The JSON document stored inside the well-known blob file.
    Always a complete snapshot of one store's history, never a delta.

    Only `data` must be an array. Its entries stay untyped here and are parsed one by one
    by the reader, so a single bad entry can't discard the rest of the history.
    """
    version: Optional[Union[str, int, float]] = Field(None, description="Format version of the document, for forward compatibility.")
    lastSync: Optional[Union[int, float]] = Field(None, description="Epoch milliseconds at the time of the write.")
    data: List[Any] = Field(default_factory=list, description="The full array of analysis records.")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "version": "1.0.0",
                "lastSync": 1717000000000,
                "data": [
                    {
                        "id": "3f0c1f5e-7c1e-4f2a-9a43-0d0d2c8b8a11",
                        "title": "An article",
                        "url": "https://example.com/article",
                        "timestamp": 1716999999000,
                        "analysis": {"idioms": [], "syntax": [], "vocabulary": []}
                    }
                ]
            }
        }
    )


class BlobFile(BaseModel):
    content: Optional[str] = None
    raw_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class BlobSummary(BaseModel):
    """One entry of a blob listing or a single blob fetch."""
    id: str
    description: Optional[str] = None
    files: Dict[str, Optional[BlobFile]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")


class RemoteIdentity(BaseModel):
    login: str

    model_config = ConfigDict(extra="ignore")

#
# End of blob_schemas.py
#######################################################################################################################
