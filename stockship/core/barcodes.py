"""
Barcode helpers for traders and deals.
Uses python-barcode to render Code128 and Pillow to compose the final PNG.
"""
import base64
import io
import logging
import random
import time

import barcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)


def generate_numeric_barcode():
    """Millisecond timestamp followed by three random digits, e.g. 1718000000000042"""
    return f"{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def _load_font(size):
    try:
        return ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf', size)
    except (OSError, IOError):
        return ImageFont.load_default()


def render_barcode_data_url(value, caption=None, width=400, height=160):
    """
    Render ``value`` as a Code128 barcode with an optional caption line.

    Returns:
        Base64-encoded PNG image as data URL string
    """
    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)
    font = _load_font(14)
    margin = 10
    caption_height = 20 if caption else 0

    code128 = barcode.get_barcode_class('code128')
    barcode_img = code128(value, writer=ImageWriter()).render({
        'write_text': False,
        'module_width': 0.3,
        'module_height': 15.0,
        'quiet_zone': 2.0,
        'background': 'white',
        'foreground': 'black',
    })

    available_height = height - caption_height - 30
    barcode_width = width - (2 * margin)
    scale = barcode_width / barcode_img.size[0]
    scaled_height = min(int(barcode_img.size[1] * scale), available_height)
    barcode_img = barcode_img.resize((barcode_width, scaled_height), Image.Resampling.BILINEAR)

    top = margin
    if caption:
        bbox = draw.textbbox((0, 0), caption, font=font)
        draw.text(((width - (bbox[2] - bbox[0])) // 2, top), caption, fill='black', font=font)
        top += caption_height
    img.paste(barcode_img, (margin, top))

    bbox = draw.textbbox((0, 0), value, font=font)
    draw.text(((width - (bbox[2] - bbox[0])) // 2, top + scaled_height + 4), value, fill='black', font=font)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=True)
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f"data:image/png;base64,{encoded}"


def safe_render_barcode(value, caption=None):
    """Like ``render_barcode_data_url`` but returns None and logs when rendering fails."""
    try:
        return render_barcode_data_url(value, caption=caption)
    except Exception as e:
        logger.warning(f"Barcode image generation failed for '{value}': {str(e)}")
        return None
