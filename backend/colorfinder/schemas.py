"""
ColorFinder Schemas
Pydantic models for validating static palette records.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PaletteRecord(BaseModel):
    """
    One reference color as stored in static palette data.
    
    Accepts lower-case keys or the capitalized keys used by exported
    palette data files (Code, Name, Hex, R, G, B).
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)
    
    code: str = Field(..., min_length=1, alias="Code", description="Unique, stable color identifier")
    name: str = Field(..., alias="Name", description="Human-readable color name")
    hex: str = Field(
        ...,
        alias="Hex",
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Hex color code in format #RRGGBB"
    )
    r: int = Field(..., ge=0, le=255, alias="R", description="Red channel")
    g: int = Field(..., ge=0, le=255, alias="G", description="Green channel")
    b: int = Field(..., ge=0, le=255, alias="B", description="Blue channel")
    
    @model_validator(mode="after")
    def check_hex_matches_channels(self) -> "PaletteRecord":
        expected = f"#{self.r:02X}{self.g:02X}{self.b:02X}"
        if self.hex.upper() != expected:
            raise ValueError(f"hex {self.hex} does not match channels {expected} for code {self.code}")
        return self

