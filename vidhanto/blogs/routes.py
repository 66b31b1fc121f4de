from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import desc, or_, cast, String
from typing import Optional
from datetime import datetime
import logging
import re

from vidhanto.database import get_db
from vidhanto.models import User, Blog, BlogComment, BlogStatus
from vidhanto.blogs.schemas import (
    BlogCreate, BlogUpdate, CommentCreate, BlogResponse, BlogListResponse, CommentResponse,
)
from vidhanto.auth.dependencies import get_current_user, require_admin
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.storage import StorageService, get_storage_service, read_upload, IMAGE_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blogs", tags=["Blogs"])


def slugify(value: str) -> str:
    ascii_value = value.encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^A-Za-z0-9]+", "-", ascii_value).strip("-").lower() or "post"


def unique_slug(title: str, db: Session, exclude_id: Optional[str] = None) -> str:
    base = slugify(title)[:200]
    slug = base
    suffix = 1
    while True:
        query = db.query(Blog.id).filter(Blog.slug == slug)
        if exclude_id:
            query = query.filter(Blog.id != exclude_id)
        if query.first() is None:
            return slug
        suffix += 1
        slug = f"{base}-{suffix}"


def get_published_or_404(slug: str, db: Session) -> Blog:
    blog = db.query(Blog).options(
        joinedload(Blog.author),
        selectinload(Blog.comments).joinedload(BlogComment.user),
    ).filter(Blog.slug == slug, Blog.status == BlogStatus.PUBLISHED).first()
    if not blog:
        raise HTTPException(status_code=404, detail="Blog post not found")
    return blog


def get_blog_or_404(blog_id: str, db: Session) -> Blog:
    blog = db.query(Blog).options(
        joinedload(Blog.author),
        selectinload(Blog.comments),
    ).filter(Blog.id == blog_id).first()
    if not blog:
        raise HTTPException(status_code=404, detail="Blog post not found")
    return blog


def blog_page(query, page: PageParams) -> dict:
    result = paginate(query, page)
    return {
        "blogs": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/", response_model=BlogListResponse)
def list_blogs(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db)
):
    query = db.query(Blog).options(joinedload(Blog.author)).filter(Blog.status == BlogStatus.PUBLISHED)
    if category:
        query = query.filter(Blog.category == category)
    if tag:
        query = query.filter(cast(Blog.tags, String).ilike(f'%"{tag}"%'))
    if search:
        query = query.filter(
            or_(
                Blog.title.ilike(f"%{search}%"),
                Blog.excerpt.ilike(f"%{search}%"),
                Blog.content.ilike(f"%{search}%"),
            )
        )
    return blog_page(query.order_by(desc(Blog.published_at)), page)


@router.get("/admin/all", response_model=BlogListResponse)
def list_all_blogs(
    status_filter: Optional[BlogStatus] = Query(None, alias="status"),
    page: PageParams = Depends(),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    query = db.query(Blog).options(joinedload(Blog.author))
    if status_filter:
        query = query.filter(Blog.status == status_filter)
    return blog_page(query.order_by(desc(Blog.created_at)), page)


@router.post("/admin", response_model=BlogResponse, status_code=status.HTTP_201_CREATED)
def create_blog(
    blog_data: BlogCreate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    blog = Blog(
        **blog_data.dict(),
        slug=unique_slug(blog_data.title, db),
        author_id=current_user.id,
    )
    if blog.status == BlogStatus.PUBLISHED:
        blog.published_at = datetime.utcnow()
    db.add(blog)
    db.commit()
    logger.info("Blog post created", extra={"blog_id": blog.id, "slug": blog.slug})
    return get_blog_or_404(blog.id, db)


@router.put("/admin/{blog_id}", response_model=BlogResponse)
def update_blog(
    blog_id: str,
    blog_update: BlogUpdate,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    blog = get_blog_or_404(blog_id, db)
    update_data = blog_update.dict(exclude_unset=True)
    if "title" in update_data and update_data["title"] != blog.title:
        blog.slug = unique_slug(update_data["title"], db, exclude_id=blog.id)
    for field, value in update_data.items():
        setattr(blog, field, value)
    if blog.status == BlogStatus.PUBLISHED and blog.published_at is None:
        blog.published_at = datetime.utcnow()
    db.commit()
    return get_blog_or_404(blog.id, db)


@router.delete("/admin/{blog_id}")
def delete_blog(
    blog_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    blog = get_blog_or_404(blog_id, db)
    db.delete(blog)
    db.commit()
    return {"message": "Blog post deleted successfully"}


@router.post("/admin/{blog_id}/image", response_model=BlogResponse)
async def upload_featured_image(
    blog_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    blog = get_blog_or_404(blog_id, db)
    content = await read_upload(file, content_types=IMAGE_TYPES)
    blog.featured_image = await storage.save(content, "blogs", file.filename, file.content_type)
    db.commit()
    return get_blog_or_404(blog.id, db)


@router.get("/{slug}", response_model=BlogResponse)
def get_blog(slug: str, db: Session = Depends(get_db)):
    blog = get_published_or_404(slug, db)
    blog.views = (blog.views or 0) + 1
    db.commit()
    return get_published_or_404(slug, db)


@router.post("/{slug}/like")
def like_blog(slug: str, db: Session = Depends(get_db)):
    blog = get_published_or_404(slug, db)
    blog.likes = (blog.likes or 0) + 1
    db.commit()
    return {"likes": blog.likes}


@router.post("/{slug}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_comment(
    slug: str,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    blog = get_published_or_404(slug, db)
    comment = BlogComment(blog_id=blog.id, user_id=current_user.id, content=comment_data.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
