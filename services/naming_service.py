"""
命名服務：由期數開始時間產生期號

純計算邏輯，不負責狀態轉換
"""
from datetime import datetime, timedelta

BUCKET_MINUTES = 3


def bucket_index(moment: datetime) -> int:
    """
    moment 所在的 3 分鐘區間編號

    公式：hour * 60 + minute // 3

    範例：
        00:00 -> 0
        00:05 -> 1
        13:07 -> 782
    """
    return moment.hour * 60 + moment.minute // BUCKET_MINUTES


def generate_period_id(start_time: datetime) -> str:
    """
    產生從 start_time 開始的期號

    格式：YYYYMMDD + 區間編號（不補零）

    範例：
        2024-03-05 13:07:20 -> "20240305782"

    注意：
        - 同一天同一區間開始的兩期會碰撞；
          呼叫端必須讓開始時間落在不同區間（見 next_bucket_start）
    """
    return f"{start_time:%Y%m%d}{bucket_index(start_time)}"


def bucket_start(moment: datetime) -> datetime:
    """moment 所在區間的起點"""
    return moment.replace(
        minute=moment.minute - moment.minute % BUCKET_MINUTES,
        second=0,
        microsecond=0
    )


def next_bucket_start(moment: datetime) -> datetime:
    """moment 所在區間的下一個區間起點"""
    return bucket_start(moment) + timedelta(minutes=BUCKET_MINUTES)
