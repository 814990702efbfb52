from enum import Enum
from pathlib import Path
from typing import ClassVar, Dict, Optional, Union

from pydantic import BaseModel, Field

from lt.utils.utils import to_tms_row


class TileKind(str, Enum):
    """Content kind of an MBTiles archive, read from its `format` metadata."""
    VECTOR = "vector"
    RASTER = "raster"

    @classmethod
    def from_format(cls, fmt: str) -> "TileKind":
        return cls.VECTOR if fmt == "pbf" else cls.RASTER

    @classmethod
    def from_suffix(cls, suffix: str) -> Optional["TileKind"]:
        return {"pbf": cls.VECTOR, "png": cls.RASTER}.get(suffix)


class ResolutionStrategy(str, Enum):
    """
    How the resolver picks archives for a tile request.

      scan_all: try every archive of the requested kind, first hit wins
      by_name:  only the archive named in the request path
    """
    SCAN_ALL = "scan_all"
    BY_NAME = "by_name"


class TileCoordinate(BaseModel):
    """
    XYZ tile coordinate (top-left origin) as it appears in a request path.

    MBTiles stores rows in TMS order (bottom-left origin), see tms_row().
    """
    model_config = {"frozen": True}

    z: int = Field(..., ge=0)
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)

    def tms_row(self) -> int:
        return to_tms_row(self.z, self.y)

    def __str__(self):
        return f"{self.z}/{self.x}/{self.y}"


####################################################################################################################
#   HTTP exchange
####################################################################################################################

class HttpRequest(BaseModel):
    model_config = {"frozen": True}

    USER_AGENT: ClassVar[str] = "user-agent"

    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    method: str = Field(default="get")

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


class HttpResponseData(BaseModel):
    headers: Dict[str, str] = Field(default_factory=dict)
    code: int
    data: bytes = Field(default=b"")


class HttpRequestError(BaseModel):
    type: str = Field(default="other")
    message: str = Field(default="")


class HttpResponse(BaseModel):
    """
    A request paired with the outcome the transport produced for it: either
    response data or a request error.
    """
    model_config = {"frozen": True}

    request: HttpRequest
    result: Union[HttpResponseData, HttpRequestError]

    @property
    def is_error(self) -> bool:
        return isinstance(self.result, HttpRequestError)

    @classmethod
    def substitute(cls, request: HttpRequest, data: bytes, code: int = 200) -> "HttpResponse":
        """Build a response for `request` carrying `data` and a copy of the request headers."""
        return cls(request=request, result=HttpResponseData(headers=dict(request.headers), code=code, data=data))


class DownloadOptions(BaseModel):
    request: HttpRequest
    local_path: Optional[Path] = None


####################################################################################################################
#   Request paths
####################################################################################################################

class TilePath(BaseModel):
    """/tiles/{name}/{z}/{x}/{y}.{ext} under the local authority."""
    model_config = {"frozen": True}

    KIND: ClassVar[TileKind]

    name: str = Field(..., min_length=1)
    coord: TileCoordinate

    @property
    def kind(self) -> TileKind:
        return self.KIND


class VectorTilePath(TilePath):
    KIND: ClassVar[TileKind] = TileKind.VECTOR


class RasterTilePath(TilePath):
    KIND: ClassVar[TileKind] = TileKind.RASTER


class LocalFilePath(BaseModel):
    model_config = {"frozen": True}

    path: str


class UnmatchedPath(BaseModel):
    model_config = {"frozen": True}

    path: str


LocalPath = Union[VectorTilePath, RasterTilePath, LocalFilePath, UnmatchedPath]


####################################################################################################################
#   Tile query outcomes
####################################################################################################################

class TileHit(BaseModel):
    archive: str
    data: bytes


class TileMiss(BaseModel):
    archive: str


class TileQueryError(BaseModel):
    archive: str
    error: str


TileQueryResult = Union[TileHit, TileMiss, TileQueryError]
