from pydantic import BaseModel, ConfigDict, Field

"""
models.py - the two record types the store keeps: users and blogs.

Both are strict pydantic models: every field must already be a str, so a
snapshot with `"role": null` or a numeric username is rejected on load
instead of slipping into the store. Copies are model_copy(); the JSON
snapshot is model_dump() of each record.
"""

ROLE_USER = "user"
ROLE_ADMIN = "admin"

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"

# Order matters: the profile edit dialogue asks for these one by one.
PROFILE_FIELDS = (
    ("name", "Name"),
    ("surname", "Surname"),
    ("favorite_animal", "Favorite Animal"),
    ("favorite_movie", "Favorite Movie"),
    ("year_of_birth", "Year of Birth"),
    ("city_of_birth", "City of Birth"),
    ("football_team", "Football Team"),
)


class User(BaseModel):
    """A registered account plus its free-form profile."""

    # Unknown keys are ignored so older/newer snapshots still load.
    model_config = ConfigDict(strict=True, extra="ignore")

    username: str = Field(min_length=1)
    password_hash: str
    role: str = Field(default=ROLE_USER, pattern="^(admin|user)$")
    status: str = Field(default=STATUS_PENDING, pattern="^(approved|pending)$")
    name: str = ""
    surname: str = ""
    favorite_animal: str = ""
    favorite_movie: str = ""
    year_of_birth: str = ""
    city_of_birth: str = ""
    football_team: str = ""

    @property
    def is_admin(self) -> bool:
        """Only an approved admin has admin privileges."""
        return self.role == ROLE_ADMIN and self.status == STATUS_APPROVED

    @property
    def has_pending_application(self) -> bool:
        return self.role == ROLE_ADMIN and self.status == STATUS_PENDING


class Blog(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")

    id: str = Field(min_length=1)
    author: str
    title: str
    text: str
