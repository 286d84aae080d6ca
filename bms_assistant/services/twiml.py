from typing import Optional

XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(text: str) -> str:
    # & first so the other entities are not escaped twice
    for char, entity in XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def build_twiml_response(message: str, media_url: Optional[str] = None) -> str:
    if media_url:
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            "<Response>\n"
            "  <Message>\n"
            f"    <Body>{escape_xml(message)}</Body>\n"
            f"    <Media>{escape_xml(media_url)}</Media>\n"
            "  </Message>\n"
            "</Response>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        f"  <Message>{escape_xml(message)}</Message>\n"
        "</Response>"
    )
