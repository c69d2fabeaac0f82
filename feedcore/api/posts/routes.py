# feedcore/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from feedcore.api.posts.schemas import (
    AuthorSummarySchema, CommentCreateSchema, CommentResponseSchema,
    ContentCreateSchema, ContentResponseSchema, EngagementStateSchema
)
from feedcore.models.content import Author, Comment, ContentItem

posts_bp = Blueprint('posts_bp', __name__)


def _author_snapshot(user_id: str) -> Author:
    """작성 시점의 프로필로 작성자 스냅샷을 만듭니다. 프로필이 없으면 ID만 기록합니다."""
    profile = current_app.services['users'].get_profile(user_id)
    if profile is None:
        return Author(user_id=user_id)
    return Author(user_id=user_id, display_name=profile.display_name, photo_url=profile.photo_url)


def _dump_items(items, viewer_id):
    dumped = ContentResponseSchema(many=True).dump(items)
    for item, data in zip(items, dumped):
        data['is_liked'] = bool(viewer_id) and viewer_id in item.liked_by
        data['is_saved'] = bool(viewer_id) and viewer_id in item.saved_by
    return dumped


@posts_bp.route('', methods=['POST'])
@jwt_required()
def create_content():
    """
    새로운 게시글 또는 스토리를 생성합니다.
    - kind 가 'story' 이면 노출 기간이 지난 뒤 피드에서 자동으로 빠집니다.
    - 성공 시 생성된 콘텐츠를 201 Created 상태 코드와 함께 반환합니다.
    """
    content_repository = current_app.services['content']
    user_id = get_jwt_identity()
    try:
        data = ContentCreateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    item = ContentItem(author=_author_snapshot(user_id), **data)
    content_id = content_repository.create(item)
    created = content_repository.get(content_id)
    return jsonify(_dump_items([created], user_id)[0]), 201


@posts_bp.route('/feed', methods=['GET'])
@jwt_required(optional=True)
def get_feed():
    """
    게시글 목록과 활성 스토리, 작성자별 스토리 레일을 한 번에 반환합니다.
    피드를 새로고침할 때마다 다시 호출합니다.
    """
    feed_aggregator = current_app.services['feed']
    user_id = get_jwt_identity()
    limit = request.args.get('limit', current_app.config['FEED_FETCH_LIMIT'], type=int)

    feed = feed_aggregator.load_feed(limit)
    groups = feed.story_groups
    return jsonify({
        "posts": _dump_items(feed.posts, user_id),
        "stories": _dump_items(feed.stories, user_id),
        "story_rail": [
            {
                "author": AuthorSummarySchema().dump(summary),
                "stories": _dump_items(groups.by_author[summary.author_id], user_id)
            }
            for summary in groups.authors
        ]
    }), 200


@posts_bp.route('/mine/stories', methods=['GET'])
@jwt_required()
def get_my_stories():
    """로그인한 사용자의 현재 활성 스토리 목록 (스토리 관리 화면용)"""
    feed_aggregator = current_app.services['feed']
    user_id = get_jwt_identity()
    limit = request.args.get('limit', current_app.config['FEED_FETCH_LIMIT'], type=int)
    stories = feed_aggregator.load_author_stories(user_id, limit)
    return jsonify({"stories": _dump_items(stories, user_id)}), 200


@posts_bp.route('/<string:post_id>', methods=['GET'])
@jwt_required(optional=True)
def get_content(post_id: str):
    content_repository = current_app.services['content']
    item = content_repository.get(post_id)
    return jsonify(_dump_items([item], get_jwt_identity())[0]), 200


@posts_bp.route('/<string:post_id>', methods=['DELETE'])
@jwt_required()
def delete_content(post_id: str):
    """
    콘텐츠를 삭제합니다. (작성자 본인 또는 관리자만 가능)
    - 하위 댓글도 함께 삭제됩니다.
    """
    content_repository = current_app.services['content']
    user_id = get_jwt_identity()
    content_repository.delete(post_id, user_id)
    return Response(status=204)


@posts_bp.route('/<string:post_id>/comments', methods=['POST'])
@jwt_required()
def create_comment(post_id: str):
    """
    특정 게시글에 새로운 댓글을 작성합니다.
    - 댓글 추가와 comment_count 증가는 하나의 트랜잭션으로 처리됩니다.
    """
    content_repository = current_app.services['content']
    user_id = get_jwt_identity()
    try:
        data = CommentCreateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    comment = Comment(post_id=post_id, author=_author_snapshot(user_id), text=data['text'])
    comment_id = content_repository.add_comment(post_id, comment)
    logging.info(f"댓글 작성 완료 (post_id: {post_id}, comment_id: {comment_id}, by: {user_id})")
    created = content_repository.get_comment(post_id, comment_id)
    return jsonify(CommentResponseSchema().dump(created)), 201


@posts_bp.route('/<string:post_id>/comments', methods=['GET'])
@jwt_required(optional=True)
def get_comments(post_id: str):
    """특정 게시글의 댓글 목록을 작성 순서대로 조회합니다."""
    content_repository = current_app.services['content']
    limit = request.args.get('limit', 50, type=int)
    comments = content_repository.list_comments(post_id, limit)
    return jsonify({"comments": CommentResponseSchema(many=True).dump(comments)}), 200


@posts_bp.route('/<string:post_id>/like', methods=['POST'])
@jwt_required()
def like_content(post_id: str):
    """좋아요. 이미 좋아요한 상태면 아무 것도 바뀌지 않습니다."""
    engagement_ledger = current_app.services['engagement']
    user_id = get_jwt_identity()
    engagement_ledger.like(post_id, user_id)
    return jsonify(EngagementStateSchema().dump(engagement_ledger.engagement_state(post_id, user_id))), 200


@posts_bp.route('/<string:post_id>/like', methods=['DELETE'])
@jwt_required()
def unlike_content(post_id: str):
    engagement_ledger = current_app.services['engagement']
    user_id = get_jwt_identity()
    engagement_ledger.unlike(post_id, user_id)
    return jsonify(EngagementStateSchema().dump(engagement_ledger.engagement_state(post_id, user_id))), 200


@posts_bp.route('/<string:post_id>/save', methods=['POST'])
@jwt_required()
def save_content(post_id: str):
    engagement_ledger = current_app.services['engagement']
    user_id = get_jwt_identity()
    engagement_ledger.save(post_id, user_id)
    return jsonify(EngagementStateSchema().dump(engagement_ledger.engagement_state(post_id, user_id))), 200


@posts_bp.route('/<string:post_id>/save', methods=['DELETE'])
@jwt_required()
def unsave_content(post_id: str):
    engagement_ledger = current_app.services['engagement']
    user_id = get_jwt_identity()
    engagement_ledger.unsave(post_id, user_id)
    return jsonify(EngagementStateSchema().dump(engagement_ledger.engagement_state(post_id, user_id))), 200
