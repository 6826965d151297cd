"""HTML 解析工具."""

import re

from bs4 import BeautifulSoup


def html_to_text(html: str) -> str:
    """
    将 HTML 转换为纯文本.

    保留换行结构：<br> 转为换行，段落之间空一行；实体字符由解析器解码。

    Args:
        html: HTML 内容

    Returns:
        提取的纯文本内容
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")

    # 移除 script 和 style 标签
    for element in soup(["script", "style"]):
        element.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for paragraph in soup.find_all("p"):
        paragraph.append("\n\n")

    text = soup.get_text()
    text = text.replace("\xa0", " ")

    # 清理多余空白
    text = re.sub(r"[ \t]+", " ", text)
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)

    # 合并连续空行
    text = re.sub(r"\n{3,}", "\n\n", text)

    return text.strip()


def extract_first_image(html: str) -> str | None:
    """
    提取 HTML 中的第一张图片 URL.

    Args:
        html: HTML 内容

    Returns:
        图片 URL 或 None
    """
    if not html or "<img" not in html.lower():
        return None

    soup = BeautifulSoup(html, "lxml")
    img = soup.find("img", src=True)

    if img is None:
        return None

    src = img.get("src")
    # 确保是字符串
    if isinstance(src, list):
        src = src[0] if src else None
    return src.strip() if src and src.strip() else None
