# track4health/models/user_models.py

import json
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UserRole = Literal["developer", "master", "fmt", "socialMobilizer"]

# Roles allowed into user management (the admin pages of the device UI).
ADMIN_ROLES = ("developer", "master")


class Location(BaseModel):
    """A single GPS fix in decimal degrees."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class User(BaseModel):
    """
    Represents a field worker or administrator.

    Stored under the `track4health_user` and `cached_users` keys and returned
    by the remote `login.php` / `users.php` endpoints. Remote rows come straight
    from MySQL, so ids may be numeric and `isOnline` may be 0/1.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(..., description="Remote user id, kept as a string")
    username: str
    name: str = Field(..., description="Display name")
    role: UserRole
    email: Optional[str] = None
    phone_number: Optional[str] = None
    designation: Optional[str] = None
    district: Optional[str] = None
    is_online: bool = False
    last_active: Optional[datetime] = None
    location: Optional[Location] = None

    @field_validator("location", mode="before")
    @classmethod
    def parse_location_column(cls, v):
        """`users.php` returns the MySQL location column as a JSON string."""
        if isinstance(v, str):
            if not v.strip():
                return None
            return json.loads(v)
        return v


class NewUser(BaseModel):
    """Payload for creating a user through `users.php`."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: UserRole
    email: Optional[str] = None
    phone_number: Optional[str] = None
    designation: Optional[str] = None
