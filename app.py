"""
app.py
Development entry point for the Blood Bank Records service.

    python app.py                      # JSON files under ./data
    BLOODBANK_STORE=dynamodb python app.py
"""
from bloodbank import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
