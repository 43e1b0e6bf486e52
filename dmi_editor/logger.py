import os
import sys
from datetime import datetime


_debug_mode = os.environ.get("DMI_DEBUG", "0").lower() in ("1", "true")


def set_debug(enabled: bool) -> None:
    """디버그 모드를 켜거나 끕니다. 꺼져 있으면 trace 로그는 출력되지 않습니다."""
    global _debug_mode
    _debug_mode = enabled


def write_log(message: str, level_str: str = "INFO") -> None:
    """로그 메시지를 파일과 콘솔에 기록합니다."""
    log_file = os.environ.get('LOG_FILE')
    
    if log_file:
        timestamp = datetime.now().isoformat()
        log_message = f"[{timestamp}] {level_str} {message}"
        
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(log_message + "\n")
    
    # stderr로 출력
    print(message, file=sys.stderr)


def trace(message: str) -> None:
    """추적 로그를 기록합니다 (디버그 모드에서만)."""
    if _debug_mode:
        write_log(f"DEBUG: {message}", "DEBUG")


def error(message: str) -> None:
    """오류 로그를 기록합니다."""
    write_log(message, "ERROR")
