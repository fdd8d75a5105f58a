"""Region OCR: vocabulary, preprocessing, crops and the greedy sequence recognizer."""
