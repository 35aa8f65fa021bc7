"""
Streamify
Messaging backend for students, faculty and parents.

Architecture:
- MongoDB: users, rooms, message mirror, friend requests
- Stream Chat: real-time delivery and chat history
- Cloudinary: attachment hosting
- OpenAI: chat analysis for parents only
"""

__version__ = "1.0.0"
