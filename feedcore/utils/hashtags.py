# feedcore/utils/hashtags.py
import re
from typing import FrozenSet, Optional

HASHTAG_PATTERN = re.compile(r'#(\w+)')


def extract_hashtags(text: Optional[str]) -> FrozenSet[str]:
    """
    텍스트에서 '#태그' 형식의 해시태그를 추출합니다.
    '#' 는 제외하고 소문자로 정규화합니다. (예: "hello #World" -> {"world"})
    """
    if not text:
        return frozenset()
    return frozenset(tag.lower() for tag in HASHTAG_PATTERN.findall(text))
