"""条目去重键计算."""

import hashlib

from shelfwatch.core.parser import FeedEntry

DEDUP_HASH_LENGTH = 32


def dedup_key_material(entry: FeedEntry) -> str:
    """去重依据：优先 guid，其次链接，最后标题."""
    return entry.guid or entry.link or entry.title or ""


def compute_dedup_hash(source_id: int | str, entry: FeedEntry) -> str:
    """
    计算条目的稳定去重键.

    同一条目无论被重复抓取多少次、在 feed 中顺序如何变化，结果都相同。
    这是唯一的幂等机制，数据库对 (source_id, dedup_hash) 做唯一约束。
    """
    material = f"{source_id}:{dedup_key_material(entry)}"
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return digest[:DEDUP_HASH_LENGTH]
