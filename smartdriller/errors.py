"""
errors.py

시험 세션 계층에서 사용하는 예외 정의.
"""


class InvalidInput(ValueError):
    """잘못된 입력 (보기 번호 범위 초과, 빈 문제 세트 등). 즉시 호출자에게 전달."""


class NetworkFailure(RuntimeError):
    """원격 API 호출 실패. 로컬 상태는 되돌리지 않는다."""
