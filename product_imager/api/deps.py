from fastapi import Request

from product_imager.queue import ProcessingQueue


def get_processing_queue(request: Request) -> ProcessingQueue:
    """Return the queue owned by the running application."""
    return request.app.state.processing_queue
