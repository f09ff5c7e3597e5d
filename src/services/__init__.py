"""
Services layer - business logic around a chat turn.

Sub-packages:
  attachment_service - PDF/image upload tray
Modules:
  notices            - success/error notices shown to the student
"""
