from imaging.background import BackgroundRemover, BGRemovalResult
from imaging.fonts import FontManager
