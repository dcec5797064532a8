# pyobstore/id_utils.py
import random
import time
import uuid


def next_id() -> str:
    """產生 Store 識別碼：毫秒時間戳 + 四位隨機數 + 八位 uuid 十六進位。"""
    timestamp = int(time.time() * 1000)
    return f"{timestamp}{random.randint(1000, 9999)}{uuid.uuid4().hex[:8]}"
