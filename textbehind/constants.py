STANDARD_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tif", ".tiff", ".webp"}
HEIF_EXTENSIONS = {".heic", ".heif", ".hif"}
SUPPORTED_EXTENSIONS = STANDARD_EXTENSIONS | HEIF_EXTENSIONS

MODE_STANDARD = "standard"
MODE_FAST = "fast"
MODE_SEGMENT = "segment"
VALID_MODES = {MODE_STANDARD, MODE_FAST, MODE_SEGMENT}

DEFAULT_MAX_DIMENSION = 1200
DEFAULT_EDGE_THRESHOLD = 50
DEFAULT_FAST_EDGE_THRESHOLD = 30
DEFAULT_DILATE_ITERATIONS = 2
DEFAULT_FAST_DILATE_ITERATIONS = 1
DEFAULT_ALPHA_THRESHOLD = 128

# 行高 = 字号 * LINE_HEIGHT_FACTOR
LINE_HEIGHT_FACTOR = 1.2

MASK_FOREGROUND = 255
MASK_BACKGROUND = 0
