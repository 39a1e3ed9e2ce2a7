from .recognizer import ClaudeVisionRecognizer, detect_media_type
