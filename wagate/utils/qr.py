from __future__ import annotations

import base64

import qrcode


def qr_svg(qr_text: str, *, border: int = 1) -> str:
    code = qrcode.QRCode(border=border)
    code.add_data(qr_text)
    code.make(fit=True)
    matrix = code.get_matrix()
    size = len(matrix)

    # One subpath per horizontal run of dark modules.
    runs: list[str] = []
    for y, row in enumerate(matrix):
        x = 0
        while x < size:
            if not row[x]:
                x += 1
                continue
            start = x
            while x < size and row[x]:
                x += 1
            runs.append(f"M{start} {y}h{x - start}v1h-{x - start}z")
    path = "".join(runs)
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {size} {size}" shape-rendering="crispEdges">'
        f'<rect width="{size}" height="{size}" fill="#fff"/>'
        f'<path fill="#000" d="{path}"/>'
        "</svg>"
    )


def qr_svg_data_url(qr_text: str) -> str:
    """Pairing code as an ``<img>``-ready SVG data URL."""
    encoded = base64.b64encode(qr_svg(qr_text).encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
