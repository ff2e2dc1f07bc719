# field_format.py
# 申報檔欄位格式化工具（X / C / 9 / S9 四種欄位型態）

import math

# C 型欄位以 Big5 (CP950) 計算長度：半形 1 單位、全形 2 單位
LEGACY_ENCODING = 'cp950'

# S9 型欄位最後一位數字的符號編碼
POSITIVE_SIGN_DIGITS = ['{', 'A', 'B', 'C', 'D', 'E', 'F', 'G', 'H', 'I']
NEGATIVE_SIGN_DIGITS = ['}', 'J', 'K', 'L', 'M', 'N', 'O', 'P', 'Q', 'R']


def round_half_up(value) -> int:
    """四捨五入至整數（0.5 一律進位）"""
    return int(math.floor(float(value) + 0.5))


def legacy_byte_length(value: str, encoding: str = LEGACY_ENCODING) -> int:
    """以舊式雙位元組編碼計算字串長度，無法編碼的字元以 1 單位計"""
    return len(value.encode(encoding, errors='replace'))


def format_x(value, length: int) -> str:
    """
    X(n) 文數字欄位：靠左，右補空白，超過長度則截斷

    Args:
        value: 欄位值
        length: 欄位長度

    Returns:
        長度恰為 length 的字串
    """
    text = '' if value is None else str(value)
    if len(text) > length:
        return text[:length]
    return text.ljust(length, ' ')


def format_c(value, length: int, encoding: str = LEGACY_ENCODING) -> str:
    """
    C(n) 中文欄位：長度以 Big5 位元組計算

    政府電子申報規格沿用 COBOL 年代的長度定義，中文字佔 2 個單位，
    若以 UTF-8（中文 3 bytes）計算會少放字。
    超過長度時逐字截斷直到放得下，不足則補半形空白。

    Args:
        value: 欄位值（可含中文）
        length: 欄位長度（Big5 位元組數）

    Returns:
        Big5 長度恰為 length 的字串
    """
    result = '' if value is None else str(value)

    while result and legacy_byte_length(result, encoding) > length:
        result = result[:-1]

    # 截斷後可能因全形字少 1 單位，一併補齊
    spaces_needed = length - legacy_byte_length(result, encoding)
    return result + ' ' * spaces_needed


def format_9(value, length: int) -> str:
    """9(n) 無號數值欄位：取絕對值四捨五入，左補零，超過長度只保留末 length 位"""
    text = str(abs(round_half_up(value)))
    if len(text) > length:
        return text[len(text) - length:]
    return text.rjust(length, '0')


def format_s9(value, length: int) -> str:
    """
    S9(n) 有號數值欄位（COBOL display sign）

    最後一位數字以符號字元取代，同時表示該位數字與正負號：
    正數 0-9 → { A B C D E F G H I，負數 0-9 → } J K L M N O P Q R

    Examples:
        >>> format_s9(148000, 12)
        '00000014800{'
        >>> format_s9(-12, 5)
        '0001K'
    """
    is_negative = float(value) < 0
    padded = format_9(value, length)
    if length <= 0:
        return padded

    last_digit = int(padded[-1])
    sign_digits = NEGATIVE_SIGN_DIGITS if is_negative else POSITIVE_SIGN_DIGITS
    return padded[:-1] + sign_digits[last_digit]


def decode_s9(encoded: str) -> int:
    """將 S9 欄位還原為整數（format_s9 的反向）"""
    head, last = encoded[:-1], encoded[-1]
    if last in POSITIVE_SIGN_DIGITS:
        return int(head + str(POSITIVE_SIGN_DIGITS.index(last)))
    if last in NEGATIVE_SIGN_DIGITS:
        return -int(head + str(NEGATIVE_SIGN_DIGITS.index(last)))
    raise ValueError(f"無效的 S9 欄位: {encoded}")
