#!/usr/bin/env python3
"""
Connection Test Script

Run this to verify MongoDB and the external services are reachable.
Usage: python scripts/test_connections.py
"""
import sys
sys.path.insert(0, '.')

from app.db.mongodb import test_mongo_connection
from app.services.stream_client import get_stream_client
from app.services.storage_client import get_storage_client
from app.services.openai_client import get_analysis_client
from app.core.config import get_settings


def main():
    settings = get_settings()
    print("=" * 50)
    print("STREAMIFY - CONNECTION TEST")
    print("=" * 50)

    # Test MongoDB
    print("\n[1] Testing MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    ✅ MongoDB: CONNECTED")
    else:
        print("    ❌ MongoDB: FAILED")

    # Test Stream Chat
    print("\n[2] Testing Stream Chat...")
    stream = get_stream_client()
    if stream.configured:
        try:
            stream.client.get_app_settings()
            print("    ✅ Stream Chat: CONNECTED")
        except Exception as e:
            print(f"    ❌ Stream Chat: FAILED ({e})")
    else:
        print("    ⚠️  Stream Chat: STREAM_API_KEY / STREAM_API_SECRET not configured")

    # Cloudinary is optional
    print("\n[3] Checking Cloudinary...")
    if get_storage_client().configured:
        print(f"    ✅ Cloudinary: configured (cloud: {settings.cloudinary_cloud_name})")
    else:
        print("    ⚠️  Cloudinary: not configured, attachments will be inlined as data URLs")

    # Test OpenAI (only if API key is set)
    print("\n[4] Testing OpenAI API...")
    if settings.openai_api_key:
        print(f"    Base URL: {settings.openai_base_url}")
        try:
            ok = get_analysis_client().test_connection()
        except Exception as e:
            print(f"    ❌ OpenAI: FAILED ({e})")
        else:
            print("    ✅ OpenAI: CONNECTED" if ok else "    ❌ OpenAI: UNEXPECTED RESPONSE")
    else:
        print("    ⚠️  OpenAI: API key not configured (chat analysis disabled)")

    print("\n" + "=" * 50)
    print("Connection test complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()
