# feedcore/models/user.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

@dataclass
class UserProfile:
    """
    Firestore 'users' 컬렉션의 문서 구조 중 이 서비스가 읽는 부분.
    프로필 관리 자체는 외부 서비스가 담당합니다.
    """
    uid: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    is_admin: bool = False
