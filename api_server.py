#!/usr/bin/env python3
"""
SimpleCamera Lab API Server
Load a photo into a session, then request any of the menu transforms.
"""

import os
import logging
import uuid
import threading
from typing import Dict, Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from services.image_service import ImageService
from services.image_transformer import ImageTransformer, TRANSFORMS
from models.errors import (
    AllocationError,
    ImageTransformError,
    InvalidArgumentError,
    InvalidImageError,
)

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")) * 1024 * 1024
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()

logger = logging.getLogger(__name__)

# Session storage for transformer state; the registry lock guards the dict itself
sessions: Dict[str, "TransformSession"] = {}
sessions_lock = threading.Lock()


class TransformSession:
    """Owns one transformer; the lock serialises requests for the same session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.transformer = ImageTransformer()
        self.lock = threading.Lock()
        self.filename: Optional[str] = None

    def clear(self):
        """Drop the held image."""
        with self.lock:
            self.transformer = ImageTransformer()
            self.filename = None


def get_or_create_session(session_id: str = None) -> TransformSession:
    """Get existing session or create new one."""
    if not session_id:
        session_id = str(uuid.uuid4())

    with sessions_lock:
        if session_id not in sessions:
            sessions[session_id] = TransformSession(session_id)
        return sessions[session_id]


def get_session(session_id: Optional[str]) -> Optional[TransformSession]:
    """Existing session or None."""
    if not session_id:
        return None
    with sessions_lock:
        return sessions.get(session_id)


def remove_session(session_id: Optional[str]) -> Optional[TransformSession]:
    if not session_id:
        return None
    with sessions_lock:
        return sessions.pop(session_id, None)


def error_status(err: ImageTransformError) -> int:
    if isinstance(err, InvalidArgumentError):
        return 400
    if isinstance(err, InvalidImageError):
        return 409
    return 500


@app.route('/api/load-image', methods=['POST'])
def load_image():
    """Decode an uploaded photo and make it the session's current image."""
    try:
        if 'image' not in request.files:
            return jsonify({'success': False, 'message': 'No image provided'}), 400

        file = request.files['image']
        if file.filename == '':
            return jsonify({'success': False, 'message': 'No file selected'}), 400

        filename = secure_filename(file.filename)
        image = image_service.decode(file.read(), filename)
        session = get_or_create_session(request.form.get('session_id'))

        with session.lock:
            session.transformer.replace(image)
            session.filename = filename

        logger.info(f"Loaded {filename} ({image.width}x{image.height}) for session {session.session_id}")

        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'width': image.width,
            'height': image.height,
            'message': f'Loaded {filename}'
        })

    except ImageTransformError as e:
        logger.error(f"Image loading error: {e}")
        status = 500 if isinstance(e, AllocationError) else 400
        return jsonify({'success': False, 'message': f'Error loading image: {str(e)}'}), status


@app.route('/api/transform', methods=['POST'])
def transform_image():
    """Apply one transform to the session's current image."""
    payload = request.get_json(silent=True) or {}
    session_id = payload.get('session_id')
    session = get_session(session_id)
    if session is None:
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    transform = payload.get('transform', 'original')
    threshold = payload.get('threshold')

    try:
        with session.lock:
            result = session.transformer.apply(transform, threshold)

        logger.info(f"Applied '{transform}' for session {session_id}")

        return jsonify({
            'success': True,
            'session_id': session_id,
            'transform': transform,
            'color_space': result.color_space.value,
            'width': result.width,
            'height': result.height,
            'image': image_service.to_data_url(result)
        })

    except ImageTransformError as e:
        logger.error(f"Transform error ({transform}): {e}")
        return jsonify({'success': False, 'message': str(e)}), error_status(e)


@app.route('/api/transforms', methods=['GET'])
def list_transforms():
    """List the available transforms."""
    return jsonify({'transforms': list(TRANSFORMS)})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'SimpleCamera Lab API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    session_id = (request.get_json(silent=True) or {}).get('session_id')
    session = remove_session(session_id)
    if session is not None:
        session.clear()
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'}), 404


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    print("Starting SimpleCamera Lab API Server...")
    print(f"Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print(f"Transforms: {', '.join(TRANSFORMS)}")
    print("="*60)

    app.run(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "5000")),
        debug=False,
        threaded=True
    )
