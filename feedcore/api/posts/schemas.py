# feedcore/api/posts/schemas.py
from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

from feedcore.api.fields import IsoDateTime, blank_to_none
from feedcore.models.content import ContentKind

# --- 재사용을 위한 중첩 스키마 ---
class AuthorSchema(Schema):
    """콘텐츠/댓글 응답에 포함될 작성자 스냅샷 스키마."""
    user_id = fields.Str(required=True)
    display_name = fields.Str(allow_none=True)
    photo_url = fields.Str(allow_none=True)

class AuthorSummarySchema(Schema):
    """스토리 레일의 작성자 요약 스키마."""
    author_id = fields.Str(required=True)
    display_name = fields.Str(allow_none=True)
    photo_url = fields.Str(allow_none=True)

# --- API 요청/응답 스키마 ---

class ContentCreateSchema(Schema):
    """POST /api/posts 요청 본문의 유효성을 검사합니다. 게시글/스토리 공통."""
    class Meta:
        unknown = EXCLUDE

    kind = fields.Enum(ContentKind, by_value=True, load_default=ContentKind.POST)
    text = fields.Str(allow_none=True, load_default=None, validate=validate.Length(max=2000))
    image_url = fields.URL(allow_none=True, load_default=None, validate=validate.Length(max=1024))
    video_url = fields.URL(allow_none=True, load_default=None, validate=validate.Length(max=1024))
    music_url = fields.URL(allow_none=True, load_default=None, validate=validate.Length(max=1024))
    music_start_time = fields.Float(allow_none=True, load_default=None,
                                    validate=validate.Range(min=0, error="음악 시작 시간은 0 이상이어야 합니다."))
    music_end_time = fields.Float(allow_none=True, load_default=None,
                                  validate=validate.Range(min=0, error="음악 종료 시간은 0 이상이어야 합니다."))

    @pre_load
    def strip_blank_values(self, data, **kwargs):
        return blank_to_none(data)

class ContentResponseSchema(Schema):
    """콘텐츠 응답을 위한 최종 JSON 형식을 정의합니다. created_at 은 ISO-8601 문자열입니다."""
    id = fields.Str(dump_only=True)
    kind = fields.Enum(ContentKind, by_value=True)
    author = fields.Nested(AuthorSchema, required=True)
    text = fields.Str(allow_none=True)
    image_url = fields.Str(allow_none=True)
    video_url = fields.Str(allow_none=True)
    music_url = fields.Str(allow_none=True)
    music_start_time = fields.Float(allow_none=True)
    music_end_time = fields.Float(allow_none=True)
    created_at = IsoDateTime()
    like_count = fields.Int()
    liked_by = fields.Function(lambda item: sorted(item.liked_by))
    comment_count = fields.Int()
    save_count = fields.Int()
    saved_by = fields.Function(lambda item: sorted(item.saved_by))
    tags = fields.Function(lambda item: sorted(item.tags))

class CommentCreateSchema(Schema):
    """
    POST /api/posts/{post_id}/comments
    댓글 생성을 요청할 때의 데이터 형식을 정의하고 유효성을 검사합니다.
    """
    text = fields.Str(required=True, validate=validate.Length(min=1, max=1000, error="댓글은 1~1000자 사이여야 합니다."))

class CommentResponseSchema(Schema):
    id = fields.Str(dump_only=True)
    post_id = fields.Str(required=True)
    author = fields.Nested(AuthorSchema, required=True)
    text = fields.Str(required=True)
    created_at = IsoDateTime()

class EngagementStateSchema(Schema):
    post_id = fields.Str()
    liked = fields.Bool()
    saved = fields.Bool()
    like_count = fields.Int()
    save_count = fields.Int()
