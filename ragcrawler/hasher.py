#To fingerprint pages and chunks
# Input: text
# Output: Base64 encoded SHA-256 digest

import base64
import hashlib


def hash_content(content):
  sha = hashlib.sha256()
  sha.update(content.encode("utf-8"))
  # Convert string to bytes before hashing
  return base64.b64encode(sha.digest()).decode("ascii")


def page_hash(url):
  # Identifies the source page, not its content
  return hash_content(url)


def chunk_hash(url, chunk_index, content):
  return hash_content(f"{url}:{chunk_index}:{content}")
