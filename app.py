from moveit import create_app

app = create_app()

if __name__ == "__main__":
    # Runs on all interfaces so the field apps can reach it on the LAN
    app.run(host="0.0.0.0", port=5000, debug=True)
