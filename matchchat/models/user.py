from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    display_name: str
    photo_url: Optional[str]
