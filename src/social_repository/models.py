# src/social_repository/models.py
"""
Entity models.

Write-models mirror the base tables; ``Advanced*`` read-models mirror the
denormalized views. Aggregated arrays default to empty lists and the
``_count`` view column is exposed as ``count``.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BirthScope = Literal["public", "follower", "following", "each", "only"]


class _Row(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Users ---
class UserId(_Row):
    id: str


class SafeUser(_Row):
    id: str
    nickname: str
    image: str
    verified: Optional["Verified"] = None


class BirthScopes(_Row):
    month: BirthScope = "public"
    year: BirthScope = "public"


class Birth(_Row):
    date: str
    scope: BirthScopes = Field(default_factory=BirthScopes)


class Verified(_Row):
    type: Literal["blue", "gold", "gray"]
    date: datetime


class User(_Row):
    id: str
    password: str
    nickname: str
    image: str
    banner: Optional[str] = None
    desc: Optional[str] = None
    location: Optional[str] = None
    birth: Optional[Birth] = None
    verified: Optional[Verified] = None
    refer: Optional[str] = None
    regist: Optional[datetime] = None


class AdvancedUser(_Row):
    id: str
    nickname: str
    image: str
    banner: Optional[str] = None
    desc: Optional[str] = None
    location: Optional[str] = None
    birth: Optional[Birth] = None
    verified: Optional[Verified] = None
    refer: Optional[str] = None
    regist: Optional[datetime] = None
    Followers: List[UserId] = Field(default_factory=list)
    Followings: List[UserId] = Field(default_factory=list)
    count: Dict[str, int] = Field(default_factory=dict, alias="_count")


class Follow(_Row):
    id: int
    source: str
    target: str
    createat: Optional[datetime] = None


# --- Posts ---
class PostImage(_Row):
    imageId: int
    link: str
    width: int
    height: int


class Post(_Row):
    postid: int
    userid: str
    content: str
    images: List[PostImage] = Field(default_factory=list)
    createat: Optional[datetime] = None
    parentid: Optional[int] = None
    originalid: Optional[int] = None
    quote: bool = False
    pinned: bool = False
    scope: Literal["every", "follow", "verified", "only"] = "every"


class ParentPost(_Row):
    postid: int
    User: SafeUser
    images: List[PostImage] = Field(default_factory=list)


class AdvancedPost(Post):
    User: SafeUser
    Parent: Optional[ParentPost] = None
    Original: Optional["AdvancedPost"] = None
    Hearts: List[UserId] = Field(default_factory=list)
    Reposts: List[UserId] = Field(default_factory=list)
    Comments: List[UserId] = Field(default_factory=list)
    Bookmarks: List[UserId] = Field(default_factory=list)
    count: Dict[str, int] = Field(default_factory=dict, alias="_count")


ReactionType = Literal["Heart", "Repost", "Comment", "Bookmark"]


class Reaction(_Row):
    id: int
    type: ReactionType
    postid: int
    commentid: Optional[int] = None
    userid: str
    quote: bool = False


ViewsKey = Literal[
    "impressions", "engagements", "detailexpands", "newfollowers", "profilevisit"
]


class Views(_Row):
    postid: int
    impressions: int = 0
    engagements: int = 0
    detailexpands: int = 0
    newfollowers: int = 0
    profilevisit: int = 0


class Hashtag(_Row):
    id: int
    type: Literal["tag", "word"] = "tag"
    title: str
    count: int = 1
    weight: float = 1


# --- Lists ---
ListsDetailType = Literal["member", "post", "unpost", "follower", "pinned", "unshow"]


class Lists(_Row):
    id: int
    userid: str
    name: str
    description: Optional[str] = None
    banner: str
    thumbnail: str
    make: Literal["private", "public"] = "public"
    createat: Optional[datetime] = None


class AdvancedLists(Lists):
    User: SafeUser
    Member: List[UserId] = Field(default_factory=list)
    Follower: List[UserId] = Field(default_factory=list)
    UnShow: List[UserId] = Field(default_factory=list)
    Posts: List[int] = Field(default_factory=list)
    Pinned: bool = False


class ListsDetail(_Row):
    id: int
    listid: int
    type: ListsDetailType
    userid: str
    postid: Optional[int] = None


# --- Rooms ---
RoomsDetailType = Literal["disable", "pin"]
SnoozeType = Literal["1h", "8h", "1w", "forever"]


class Room(_Row):
    id: str
    receiverid: str
    senderid: str
    createat: Optional[datetime] = None


class UnseenCount(_Row):
    id: str
    count: int


class AdvancedRoom(Room):
    Receiver: SafeUser
    Sender: SafeUser
    sent: List[UnseenCount] = Field(default_factory=list)
    lastmessageid: Optional[int] = None
    lastmessagesenderid: Optional[str] = None
    type: Optional[Literal["image", "gif"]] = None
    content: Optional[str] = None
    lastat: Optional[datetime] = None
    Pinned: bool = False
    Disabled: bool = False
    Snooze: Optional[Dict[str, Any]] = None


class RoomsDetail(_Row):
    id: int
    type: RoomsDetailType
    userid: str
    roomid: str


class RoomsSnooze(_Row):
    id: int
    type: SnoozeType
    userid: str
    roomid: str
    createat: Optional[datetime] = None


class RoomNotification(_Row):
    id: str
    Notifications: int


# --- Messages ---
MessagesDetailType = Literal["react", "disable", "image", "gif"]
MediaType = Literal["image", "gif"]


class Message(_Row):
    id: int
    roomid: str
    senderid: str
    content: str
    createat: Optional[datetime] = None
    seen: bool = False
    parentid: Optional[int] = None


class MessagesMedia(_Row):
    id: int
    type: MediaType
    messageid: Optional[int] = None
    url: str
    width: int
    height: int


class ParentMessage(_Row):
    id: int
    senderid: str
    Sender: SafeUser
    content: str
    createat: Optional[datetime] = None
    Media: Optional[MessagesMedia] = None


class MessageReact(_Row):
    id: str
    nickname: str
    image: str
    verified: Optional[Verified] = None
    content: str


class AdvancedMessage(Message):
    Sender: SafeUser
    Parent: Optional[ParentMessage] = None
    Disable: List[UserId] = Field(default_factory=list)
    React: List[MessageReact] = Field(default_factory=list)
    Media: Optional[MessagesMedia] = None
    Room: Optional[Dict[str, Any]] = None


class MessagesDetail(_Row):
    id: int
    type: MessagesDetailType
    messageid: int
    userid: str
    content: str = ""


SafeUser.model_rebuild()
AdvancedPost.model_rebuild()
