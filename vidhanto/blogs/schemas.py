from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from vidhanto.models import BlogStatus


class BlogCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []
    featured_image: Optional[str] = None
    status: BlogStatus = BlogStatus.DRAFT
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=300)


class BlogUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    excerpt: Optional[str] = Field(None, max_length=500)
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = None
    featured_image: Optional[str] = None
    status: Optional[BlogStatus] = None
    meta_title: Optional[str] = Field(None, max_length=200)
    meta_description: Optional[str] = Field(None, max_length=300)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class BlogAuthor(BaseModel):
    id: str
    first_name: str
    last_name: str
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class CommentResponse(BaseModel):
    id: str
    blog_id: str
    user_id: str
    content: str
    user: Optional[BlogAuthor] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlogSummary(BaseModel):
    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    featured_image: Optional[str] = None
    status: BlogStatus
    published_at: Optional[datetime] = None
    views: int = 0
    likes: int = 0
    author: Optional[BlogAuthor] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlogResponse(BlogSummary):
    content: str
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    comments: List[CommentResponse] = []


class BlogListResponse(BaseModel):
    blogs: List[BlogSummary]
    total: int
    page: int
    pages: int
